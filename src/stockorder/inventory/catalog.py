"""商品カタログ検索 - Open Food Facts API + ストアキャッシュ

カタログは「あれば使う」補助情報。HTTP 404・非200・通信エラー・
不正なJSONはすべて「メタデータなし」として返し、例外は投げない。
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

import requests

from .models import CatalogProduct
from .store import CATALOG_CACHE_KEY, KeyValueStore

logger = logging.getLogger(__name__)

BASE_URL = "https://world.openfoodfacts.org/api/v2"
DEFAULT_TIMEOUT = 10
USER_AGENT = "stockorder/0.1 (inventory toolkit)"


@dataclass
class LookupResult:
    """バーコード検索の結果

    available=False はサービスに到達できなかったことを表す。
    available=True かつ product=None は「カタログに存在しない」。
    """
    product: Optional[CatalogProduct] = None
    available: bool = True

    @property
    def found(self) -> bool:
        return self.product is not None


class CatalogLookup:
    """商品カタログの基底クラス"""

    def lookup(self, barcode: str) -> LookupResult:
        raise NotImplementedError

    def get_by_barcode(self, barcode: str) -> Optional[CatalogProduct]:
        return self.lookup(barcode).product

    def search_by_name(self, text: str) -> list[CatalogProduct]:
        return []


class NullCatalog(CatalogLookup):
    """オフライン用。常に到達不可を返す。"""

    def lookup(self, barcode: str) -> LookupResult:
        return LookupResult(available=False)


class OpenFoodFactsCatalog(CatalogLookup):
    """Open Food Facts API クライアント"""

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        cache: Optional[KeyValueStore] = None,
    ):
        """
        Args:
            base_url: API のルート (例: "https://world.openfoodfacts.org/api/v2")
            timeout: HTTP タイムアウト秒数
            cache: 見つかった商品をキャッシュするストア。None ならキャッシュしない。
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache
        self._session = requests.Session()
        self._session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        })

    def lookup(self, barcode: str) -> LookupResult:
        """バーコードで商品を検索する。

        1. ストアキャッシュをチェック
        2. Open Food Facts API

        Returns:
            LookupResult
        """
        cached = self._get_cache(barcode)
        if cached:
            return LookupResult(product=cached)

        try:
            resp = self._session.get(
                f"{self.base_url}/product/{barcode}", timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning("Catalog lookup failed for %s: %s", barcode, e)
            return LookupResult(available=False)

        if resp.status_code == 404:
            logger.info("Product %s not found in catalog", barcode)
            return LookupResult()
        if resp.status_code != 200:
            logger.warning("Catalog API error for %s: HTTP %s", barcode, resp.status_code)
            return LookupResult(available=False)

        try:
            data = resp.json()
        except ValueError:
            logger.warning("Catalog returned invalid JSON for %s", barcode)
            return LookupResult(available=False)

        if not isinstance(data, dict) or data.get("status") != 1:
            logger.info("Product %s not found in catalog", barcode)
            return LookupResult()
        raw = data.get("product")
        if not isinstance(raw, dict):
            logger.info("Product %s not found in catalog", barcode)
            return LookupResult()

        product = _to_catalog_product(raw, barcode)
        self._set_cache(barcode, product)
        return LookupResult(product=product)

    def search_by_name(self, text: str) -> list[CatalogProduct]:
        """ブランド名で商品を検索（最大20件）"""
        try:
            resp = self._session.get(
                f"{self.base_url}/search",
                params={"brands_tags": text, "page_size": 20},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Catalog search failed for %r: %s", text, e)
            return []

        products = data.get("products") if isinstance(data, dict) else None
        if not isinstance(products, list):
            return []
        return [
            _to_catalog_product(p, p.get("code", ""))
            for p in products
            if isinstance(p, dict)
        ]

    # ── キャッシュ ──

    def _get_cache(self, barcode: str) -> Optional[CatalogProduct]:
        if self.cache is None:
            return None
        entry = self.cache.get_json(CATALOG_CACHE_KEY, {}).get(barcode)
        if entry:
            return CatalogProduct(**entry)
        return None

    def _set_cache(self, barcode: str, product: CatalogProduct):
        if self.cache is None:
            return
        with self.cache.locked(CATALOG_CACHE_KEY):
            entries = self.cache.get_json(CATALOG_CACHE_KEY, {})
            entries[barcode] = asdict(product)
            self.cache.set_json(CATALOG_CACHE_KEY, entries)


def _to_catalog_product(raw: dict, barcode: str) -> CatalogProduct:
    """APIレスポンスの product を CatalogProduct に変換"""
    return CatalogProduct(
        barcode=str(raw.get("code") or barcode),
        name=(raw.get("product_name") or "").strip(),
        brand=raw.get("brands") or None,
        image_url=raw.get("image_url") or None,
        category=raw.get("categories") or None,
        serving_size=raw.get("serving_size") or None,
    )
