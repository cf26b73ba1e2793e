"""Stream the paths of new files appearing in a directory."""
