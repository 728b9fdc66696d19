"""
Swift storage layer: REST engine, session management, directory emulation
and the read/write streams.
"""
