from .interceptor import OfflineInterceptor, RouteKind, Strategy, WorkerState
from .network import Network
from .registration import Registration
from .storage import CacheStorage, CacheStore, build_storage
from .stores import ResponseSnapshot, StoreNames, StoreRole, request_key
from .transport import OfflineTransport
