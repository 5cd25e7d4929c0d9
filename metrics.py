# Reporting and dashboard figures computed from rows already fetched through the gateway
#
# Every function is pure and deterministic, and returns zero-valued or empty results
# for empty input rather than raising. Sale rows are expected to carry the referenced
# product under 'product' (as the gateways return them); a missing product counts as
# a purchase price of 0.

from datetime import datetime, timedelta

from models import utcnow

DEFAULT_LOW_STOCK_THRESHOLD = 5
DEFAULT_TOP_PRODUCTS_LIMIT = 5
DEFAULT_WINDOW_DAYS = 30


# ==================== TIME WINDOWS ====================

def day_bounds(now):
    """Return [start, end) of the calendar day containing `now`."""
    start = datetime(now.year, now.month, now.day)
    return start, start + timedelta(days=1)


def start_of_month(now):
    return datetime(now.year, now.month, 1)


def _in_window(timestamp, start, end):
    # Inclusive of start, exclusive of end; end=None leaves the window open
    if timestamp is None:
        return False
    if start is not None and timestamp < start:
        return False
    if end is not None and timestamp >= end:
        return False
    return True


# ==================== SALES ====================

def sale_profit(sale):
    """(selling_price - product purchase_price) * quantity for a single sale row."""
    product = sale.get('product') or {}
    cost = product.get('purchase_price') or 0
    return (sale['selling_price'] - cost) * sale['quantity']


def _totals(sales):
    total_sales = 0
    total_profit = 0
    for sale in sales:
        total_sales += sale.get('total_price') or 0
        total_profit += sale_profit(sale)
    return {'total_sales': total_sales, 'total_profit': total_profit}


def daily_totals(sales, day_start, day_end):
    """
    Sum revenue and profit of the sales made in [day_start, day_end).

    Returns {'total_sales': ..., 'total_profit': ...}; both are 0 for an empty window.
    """
    return _totals(s for s in sales if _in_window(s.get('sale_date'), day_start, day_end))


def monthly_totals(sales, month_start, now):
    """Revenue and profit of the sales in [month_start, now)."""
    return _totals(s for s in sales if _in_window(s.get('sale_date'), month_start, now))


def time_series(sales, window_days=DEFAULT_WINDOW_DAYS, now=None):
    """
    Per-date revenue and profit over the trailing `window_days` days ending at `now`.

    One record {'date', 'sales_total', 'profit_total'} is produced for every calendar
    date that has at least one sale; dates without sales are left out. The date is
    the sale timestamp truncated to a date. Records are ordered by ascending date.
    `now` defaults to the current UTC time.
    """
    if now is None:
        now = utcnow()
    start = now - timedelta(days=window_days)
    buckets = {}
    for sale in sales:
        timestamp = sale.get('sale_date')
        if timestamp is None or timestamp < start or timestamp > now:
            continue
        bucket = buckets.setdefault(timestamp.date(), {'sales_total': 0, 'profit_total': 0})
        bucket['sales_total'] += sale.get('total_price') or 0
        bucket['profit_total'] += sale_profit(sale)
    return [
        {'date': day, 'sales_total': totals['sales_total'], 'profit_total': totals['profit_total']}
        for day, totals in sorted(buckets.items())
    ]


def top_products(sales, limit=DEFAULT_TOP_PRODUCTS_LIMIT, month_start=None, now=None):
    """
    Best sellers of the month: sales in [month_start, now) grouped by (name, category).

    Groups accumulate quantity and revenue and are sorted by quantity, highest first.
    Equal quantities keep the order in which their groups were first seen. At most
    `limit` records are returned.
    """
    groups = {}
    for sale in sales:
        if not _in_window(sale.get('sale_date'), month_start, now):
            continue
        product = sale.get('product') or {}
        key = (product.get('name') or '', product.get('category') or '')
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                'name': key[0],
                'category': key[1],
                'total_quantity': 0,
                'total_revenue': 0,
            }
        group['total_quantity'] += sale['quantity']
        group['total_revenue'] += sale.get('total_price') or 0
    ranked = sorted(groups.values(), key=lambda g: g['total_quantity'], reverse=True)
    return ranked[:max(limit, 0)]


# ==================== PRODUCTS ====================

def low_stock(products, threshold=DEFAULT_LOW_STOCK_THRESHOLD):
    """Products with stock strictly below `threshold`, lowest stock first."""
    return sorted((p for p in products if p['stock'] < threshold), key=lambda p: p['stock'])


def filter_products(products, search=None, category=None, low_stock_only=False,
                    threshold=DEFAULT_LOW_STOCK_THRESHOLD):
    """
    Inventory page filtering.
    `search` matches name or category case-insensitively, `category` must match exactly.
    """
    result = list(products)
    if search:
        term = search.lower()
        result = [p for p in result if term in p['name'].lower() or term in p['category'].lower()]
    if category:
        result = [p for p in result if p['category'] == category]
    if low_stock_only:
        result = [p for p in result if p['stock'] < threshold]
    return result


# ==================== SUPPLIERS ====================

def average_unit_price(total_amount, total_quantity):
    """total_amount / total_quantity, or None when no units were bought."""
    if not total_quantity:
        return None
    return total_amount / total_quantity


def supplier_totals(purchases):
    """
    Group purchases by exact supplier name.

    Each record holds total_amount (sum of quantity * purchase_price), total_quantity
    and average_price. Records come in first-seen order; use by_total_amount() for
    the display order.
    """
    groups = {}
    for purchase in purchases:
        group = groups.setdefault(purchase['supplier'], {'total_amount': 0, 'total_quantity': 0})
        group['total_amount'] += purchase['quantity'] * purchase['purchase_price']
        group['total_quantity'] += purchase['quantity']
    return [
        {
            'supplier': supplier,
            'total_amount': totals['total_amount'],
            'total_quantity': totals['total_quantity'],
            'average_price': average_unit_price(totals['total_amount'], totals['total_quantity']),
        }
        for supplier, totals in groups.items()
    ]


def by_total_amount(supplier_rows):
    return sorted(supplier_rows, key=lambda row: row['total_amount'], reverse=True)


def supplier_summary(supplier_rows):
    return {
        'supplier_count': len(supplier_rows),
        'total_amount': sum(row['total_amount'] for row in supplier_rows),
        'total_quantity': sum(row['total_quantity'] for row in supplier_rows),
    }


# ==================== REPORTS ====================

def profit_and_loss(sales, purchases):
    """
    Headline figures of the reports page.
    Profit / loss here is simply total sales revenue minus total purchase cost.
    """
    total_sales_amount = sum(s['quantity'] * s['selling_price'] for s in sales)
    total_purchase_cost = sum(p['quantity'] * p['purchase_price'] for p in purchases)
    return {
        'total_sales_txns': len(sales),
        'total_sales_qty': sum(s['quantity'] for s in sales),
        'total_sales_amount': total_sales_amount,
        'total_purchase_txns': len(purchases),
        'total_purchase_qty': sum(p['quantity'] for p in purchases),
        'total_purchase_cost': total_purchase_cost,
        'profit_loss': total_sales_amount - total_purchase_cost,
    }


def dashboard_stats(sales, products, now,
                    low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD,
                    top_limit=DEFAULT_TOP_PRODUCTS_LIMIT,
                    window_days=DEFAULT_WINDOW_DAYS):
    """Everything the dashboard shows, computed from one full read of sales and products."""
    day_start, day_end = day_bounds(now)
    month_start = start_of_month(now)
    today = daily_totals(sales, day_start, day_end)
    month = monthly_totals(sales, month_start, now)
    return {
        'todays_sales': today['total_sales'],
        'todays_profit': today['total_profit'],
        'monthly_sales': month['total_sales'],
        'monthly_profit': month['total_profit'],
        'low_stock_products': low_stock(products, low_stock_threshold),
        'sales_chart': time_series(sales, window_days, now),
        'top_products': top_products(sales, top_limit, month_start, now),
    }
