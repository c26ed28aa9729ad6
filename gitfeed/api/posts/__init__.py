"""Resources exposing the posts store over HTTP."""
