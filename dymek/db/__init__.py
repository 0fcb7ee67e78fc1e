"""
Record stores: the abstract contract plus Firestore and in-memory backends.
"""
