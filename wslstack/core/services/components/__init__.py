"""Component install steps — one module per installed product."""
