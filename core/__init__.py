"""core/ -- Kernel: configuration shared by api/, auth/ wiring and the CLI."""
