"""Django project package for the clinic backend."""
