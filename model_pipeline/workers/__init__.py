"""Job handlers for the 3D model generation pipeline.

This package contains one module per pipeline step (submission, status
polling, asset download). Each handler receives a JobContext and the
shared PipelineDependencies and follows the short transaction pattern.
"""
