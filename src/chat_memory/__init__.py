"""
Context budgeting and relevance-ranked long-term memory for a chat backend.
"""
