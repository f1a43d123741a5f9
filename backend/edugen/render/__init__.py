"""Render service: turns Manim and Asymptote source into media files."""
