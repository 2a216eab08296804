"""HTTP and command-line surfaces over the `finder` core."""
