from django.urls import path

from shop import views

urlpatterns = [
    path("orders", views.checkout_api, name="checkout-api"),
    path("create-payment", views.create_payment_api, name="create-payment-api"),
    path("verify-payment", views.verify_payment_api, name="verify-payment-api"),
    path("update-order-status", views.update_order_status_api, name="update-order-status-api"),
    path("products", views.products_api, name="products-api"),
    path("minerals", views.minerals_api, name="minerals-api"),
    path("minerals/showcase", views.minerals_showcase_api, name="minerals-showcase-api"),
    path("minerals/buy", views.minerals_buy_api, name="minerals-buy-api"),
    path("admin/login", views.admin_login_api, name="admin-login-api"),
    path("admin/logout", views.admin_logout_api, name="admin-logout-api"),
    path("admin/sales/analytics", views.sales_analytics_api, name="sales-analytics-api"),
    path("admin/analytics/sales-trends", views.sales_trends_api, name="sales-trends-api"),
    path("admin/analytics/geographic-sales", views.geographic_sales_api, name="geographic-sales-api"),
    path("admin/analytics/customer-analytics", views.customer_analytics_api, name="customer-analytics-api"),
    path("admin/products", views.admin_products_api, name="admin-products-api"),
    path("admin/products/<int:product_id>", views.admin_product_detail_api, name="admin-product-detail-api"),
    path("admin/customers", views.admin_customers_api, name="admin-customers-api"),
    path("admin/orders", views.admin_orders_api, name="admin-orders-api"),
    path("admin/orders/cleanup", views.admin_orders_cleanup_api, name="admin-orders-cleanup-api"),
    path("admin/orders/bulk-update", views.admin_orders_bulk_update_api, name="admin-orders-bulk-update-api"),
    path("admin/orders/<int:order_id>/status", views.admin_order_status_api, name="admin-order-status-api"),
    path("admin/returns", views.admin_returns_api, name="admin-returns-api"),
    path("admin/returns/<int:return_id>", views.admin_return_detail_api, name="admin-return-detail-api"),
]
