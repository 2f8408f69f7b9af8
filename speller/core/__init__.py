"""Pure building blocks: models, errors, diff, rating, statistics."""
