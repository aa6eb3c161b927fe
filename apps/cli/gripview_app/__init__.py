"""Command line app for the GRIP viewer."""
