"""
Low level representation of the search request -- shared with callers and engines alike.

Used to stabilise the contract between the controller, the engines which compute the paths and
the callers which consume the resulting courses. The controller itself never looks inside the
search context, it only hands it over.
"""
