"""
Search engines, ie, implementations of the `detour.controller.engine.SearchEngine` protocol
together with the factories the controller uses to construct them.
"""
