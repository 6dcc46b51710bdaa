"""Qt host application for the course launcher."""
