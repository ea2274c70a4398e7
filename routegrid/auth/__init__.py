"""Edit-mode gate."""
