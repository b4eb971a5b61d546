"""Sanitizers for message HTML and inline CSS."""