# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Este módulo proporciona una forma centralizada de obtener instancias
# de repositorios y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (se puede inyectar un store falso)
#   - Migración gradual (cambiar el store sin tocar servicios)
#
# ═══════════════════════════════════════════════════════════════════════════════
# MIGRACIÓN A BASE REMOTA
# ═══════════════════════════════════════════════════════════════════════════════
#
# 1. Crear una clase que implemente IDataStore (insert, batch_insert, update,
#    delete, query y, si puede, transaction()).
# 2. Instanciarla en la propiedad `store` de este archivo.
#
# Los servicios NO cambian: dependen de interfaces, no de implementaciones.
# ==============================================================================

from typing import Optional

from app_pdv.config import AppConfig

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia
# ═══════════════════════════════════════════════════════════════════════════════
from app_pdv.repositories import (
    IDataStore,
    JSONDataStore,
    CashRegisterRepository,
    ProductRepository,
    OperatorRepository,
    AuditRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from app_pdv.services import (
    AuditService,
    SalesService,
    CancellationService,
    SalesQueryService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(config=AppConfig.from_env())
        sales_service = container.sales_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, config: AppConfig = None, store: IDataStore = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config: AppConfig = None, store: IDataStore = None):
        """
        Inicializa el contenedor.

        Args:
            config: Configuración de la aplicación (por defecto desde el entorno)
            store: Store ya construido (tests); por defecto JSONDataStore
        """
        if self._initialized:
            return

        self.config = config or AppConfig.from_env()

        # Inicializar repositorios (lazy loading)
        self._store: Optional[IDataStore] = store
        self._cash_register_repo: Optional[CashRegisterRepository] = None
        self._product_repo: Optional[ProductRepository] = None
        self._operator_repo: Optional[OperatorRepository] = None
        self._audit_repo: Optional[AuditRepository] = None

        # Inicializar servicios (lazy loading)
        self._audit_service: Optional[AuditService] = None
        self._sales_service: Optional[SalesService] = None
        self._cancellation_service: Optional[CancellationService] = None
        self._sales_query_service: Optional[SalesQueryService] = None

        self._initialized = True

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def store(self) -> IDataStore:
        """Almacenamiento (singleton)."""
        if self._store is None:
            self._store = JSONDataStore(
                self.config.data_dir,
                lock_timeout=self.config.store_lock_timeout
            )
        return self._store

    @property
    def cash_register_repo(self) -> CashRegisterRepository:
        """Estado de caja (singleton)."""
        if self._cash_register_repo is None:
            self._cash_register_repo = CashRegisterRepository(self.store)
        return self._cash_register_repo

    @property
    def product_repo(self) -> ProductRepository:
        """Catálogo de productos (singleton)."""
        if self._product_repo is None:
            self._product_repo = ProductRepository(self.store)
        return self._product_repo

    @property
    def operator_repo(self) -> OperatorRepository:
        """Directorio de operadores (singleton)."""
        if self._operator_repo is None:
            self._operator_repo = OperatorRepository(self.store)
        return self._operator_repo

    @property
    def audit_repo(self) -> AuditRepository:
        """Repositorio de auditoría (singleton)."""
        if self._audit_repo is None:
            self._audit_repo = AuditRepository(self.store)
        return self._audit_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        """Servicio de auditoría (singleton)."""
        if self._audit_service is None:
            self._audit_service = AuditService(self.audit_repo)
        return self._audit_service

    @property
    def sales_service(self) -> SalesService:
        """Servicio de ventas (singleton)."""
        if self._sales_service is None:
            self._sales_service = SalesService(
                self.store,
                self.cash_register_repo,
                self.audit_service
            )
        return self._sales_service

    @property
    def cancellation_service(self) -> CancellationService:
        """Servicio de anulación (singleton)."""
        if self._cancellation_service is None:
            self._cancellation_service = CancellationService(self.store, self.audit_service)
        return self._cancellation_service

    @property
    def sales_query_service(self) -> SalesQueryService:
        """Servicio de consulta de ventas (singleton)."""
        if self._sales_query_service is None:
            self._sales_query_service = SalesQueryService(self.store, self.operator_repo)
        return self._sales_query_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        self._store = None
        self._cash_register_repo = None
        self._product_repo = None
        self._operator_repo = None
        self._audit_repo = None

        self._audit_service = None
        self._sales_service = None
        self._cancellation_service = None
        self._sales_query_service = None

    @classmethod
    def get_instance(cls, config: AppConfig = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            config: Configuración (solo se usa en la primera llamada)
        """
        if cls._instance is None:
            return cls(config)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None
