"""
move-explainer: community explanations of Sui Move functions, plus on-demand
decompilation of on-chain Move packages through the ``revela`` decompiler.
"""

__version__ = "0.1.0"
