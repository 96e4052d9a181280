"""X11 display, input and capture layer"""
