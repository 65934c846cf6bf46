"""Drawing backends fed by the dispatch stage."""
