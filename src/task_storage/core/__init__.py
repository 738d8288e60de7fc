"""Task storage ports."""
