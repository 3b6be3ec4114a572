"""On-disk layout of the offline copy: path mapping, link rewriting, persistence."""
