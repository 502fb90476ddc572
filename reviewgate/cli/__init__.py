"""
ReviewGate command-line interface.
"""
