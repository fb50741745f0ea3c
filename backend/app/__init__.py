"""FreelanceHub backend API."""
