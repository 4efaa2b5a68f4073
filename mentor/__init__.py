"""Profesor Mentis guided-tutoring dialogue engine."""
