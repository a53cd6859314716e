"""Application layer: dataset access and search services."""
