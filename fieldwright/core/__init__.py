"""Core data models shared by the compiler and runtime."""
