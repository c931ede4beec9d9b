"""
ExamHub backend: test planning and test execution service.
"""
__version__ = "0.1.0"
