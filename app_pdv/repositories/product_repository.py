# ==============================================================================
# REPOSITORIO DE PRODUCTOS (CATÁLOGO)
# ==============================================================================
# Encapsula el acceso a pdv_products. El motor de ventas solo lee.
# ==============================================================================

from typing import List, Optional

from app_pdv.models.entities import PRODUCTS_TABLE, Product
from app_pdv.repositories.interfaces import IDataStore

# Categorías del PDV ('all' = sin filtro)
CATEGORIES = {
    'all': 'Todos',
    'acai': 'Açaí',
    'bebidas': 'Bebidas',
    'complementos': 'Complementos',
    'sobremesas': 'Sobremesas',
    'sorvetes': 'Sorvetes',
    'outros': 'Outros',
}


class ProductRepository:
    """
    Catálogo de productos (implementa ICatalog).

    Formato de datos en pdv_products:
    [
        {
            "id": "...", "code": "AC500", "name": "Açaí 500ml",
            "category": "acai", "is_weighable": false,
            "unit_price": 15.0, "price_per_gram": null, "is_active": true
        }
    ]
    """

    def __init__(self, store: IDataStore):
        self.store = store

    def get_active_products(self) -> List[Product]:
        """
        Productos activos ordenados por nombre.

        Returns:
            Lista de Product
        """
        rows = self.store.query(PRODUCTS_TABLE, [('is_active', 'eq', True)], order_by='name')
        return [Product.from_dict(r) for r in rows]

    def get_product(self, product_id: str) -> Optional[Product]:
        """Producto por ID, o None si no existe."""
        rows = self.store.query(PRODUCTS_TABLE, [('id', 'eq', product_id)])
        return Product.from_dict(rows[0]) if rows else None

    def search(self, query: str = '', category: str = 'all') -> List[Product]:
        """
        Búsqueda sobre productos activos.

        Args:
            query: Texto a buscar en nombre o código (sin distinguir mayúsculas)
            category: Categoría exacta, o 'all' para todas

        Returns:
            Productos activos que coinciden
        """
        query_lower = (query or '').strip().lower()
        products = self.get_active_products()
        result = []
        for product in products:
            if category and category != 'all' and product.category != category:
                continue
            if query_lower and query_lower not in product.name.lower() \
                    and query_lower not in (product.code or '').lower():
                continue
            result.append(product)
        return result
