"""
Test suite for the Joy & Math research project.

This package contains unit tests and integration tests for:
- Emotion data cleaning and reshaping
- Kernel smoothing of joy trajectories
- Strategy aggregation and linkage
- Functional beta regression and model comparison
- The end-to-end pipeline and CLI
"""
