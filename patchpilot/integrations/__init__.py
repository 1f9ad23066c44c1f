"""External collaborators: configuration, session sink, search, GitHub"""
