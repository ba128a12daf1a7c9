from .server import MerchantIntegrationServer, build_pipeline, build_server

__all__ = ["MerchantIntegrationServer", "build_pipeline", "build_server"]
