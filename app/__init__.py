"""Flask application for the project showcase site."""
