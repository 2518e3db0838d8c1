from .api_features import APIFeatures, parse_query_params

__all__ = ["APIFeatures", "parse_query_params"]
