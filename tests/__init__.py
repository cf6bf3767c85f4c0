"""
Tests for the step calculator.
"""
