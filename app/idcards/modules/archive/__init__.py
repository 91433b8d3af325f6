"""
History archive: append-only copies of Accepted/Rejected rows, written by the
transfer-to-history protocol.
"""
