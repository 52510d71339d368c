"""Root conftest so ``scripts`` and ``autocrop`` import from a plain checkout."""
