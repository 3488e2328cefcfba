from .services.client import LocalizationClient
from .services.credentials import EnvTokenProvider, StaticTokenProvider
from .strategies.adjust_intrinsics import IntrinsicsAdjuster
from .strategies.encode_query import QueryEncoder, select_map
from .strategies.resolve_pose import PoseResolver


class StrategyFactory:
    @staticmethod
    def from_config(config):
        adj = IntrinsicsAdjuster(
            target_width=config.target_width,
            target_height=config.target_height,
            jpeg_quality=config.jpeg_quality,
        )
        enc = QueryEncoder()
        client = LocalizationClient(config.query_url, timeout=config.timeout_sec)
        res = PoseResolver(epsilon=config.degenerate_epsilon)
        return adj, enc, client, res

    @staticmethod
    def selector_from_config(config):
        return select_map(config.map_code, config.map_set_code, config.map_type)

    @staticmethod
    def credentials_from_config(config):
        if config.token:
            return StaticTokenProvider(config.token)
        return EnvTokenProvider()
