"""Network clients and the shared task runner used by the probers."""
