"""
Campus feed service: feed composition, poll voting and comment threads for
university organizations.
"""
