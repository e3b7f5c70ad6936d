"""PixelDirector: natural-language image editing over remote vision models."""
