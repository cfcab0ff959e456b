from costbook.models.user import User
from costbook.models.product import Product
from costbook.models.cost_line import ProductAdditionalCost, ProductJobWork, ProductMaterial
from costbook.models.sales import Sale
from costbook.models.stock import StockMovement
from costbook.models.overhead import Overhead
