from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('items', sa.JSON, nullable=False),
        sa.Column('shipping_address', sa.JSON, nullable=True),
        sa.Column('subtotal', sa.Numeric(10,2), nullable=False),
        sa.Column('tax', sa.Numeric(10,2), nullable=False),
        sa.Column('shipping_cost', sa.Numeric(10,2), nullable=False),
        sa.Column('total', sa.Numeric(10,2), nullable=False),
        sa.Column('payment_method', sa.String(30), nullable=True),
        sa.Column('order_status', sa.String(30), nullable=False, server_default='processing'),
        sa.Column('payment_status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('razorpay_order_id', sa.String(100), nullable=True),
        sa.Column('razorpay_payment_id', sa.String(100), nullable=True),
        sa.Column('razorpay_signature', sa.String(255), nullable=True),
        sa.Column('paid_at', sa.DateTime, nullable=True),
        sa.Column('shiprocket_order_id', sa.String(50), nullable=True),
        sa.Column('shiprocket_shipment_id', sa.String(50), nullable=True),
        sa.Column('shiprocket_status', sa.String(100), nullable=True),
        sa.Column('shiprocket_synced_at', sa.DateTime, nullable=True),
        sa.Column('awb_number', sa.String(50), nullable=True),
        sa.Column('courier_name', sa.String(100), nullable=True),
        sa.Column('courier_id', sa.String(50), nullable=True),
        sa.Column('pickup_scheduled_date', sa.DateTime, nullable=True),
        sa.Column('expected_delivery_date', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.Column('shipped_at', sa.DateTime, nullable=True),
        sa.Column('delivered_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_order_status', 'orders', ['order_status'])
    op.create_index('ix_orders_razorpay_order_id', 'orders', ['razorpay_order_id'])
    op.create_index('ix_orders_awb_number', 'orders', ['awb_number'])
    op.create_index('idx_orders_status_delivered_at', 'orders', ['order_status', 'delivered_at'])

    op.create_table(
        'shipment_logs',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.String(36), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('request_payload', sa.JSON, nullable=True),
        sa.Column('response_payload', sa.JSON, nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_shipment_logs_order_id', 'shipment_logs', ['order_id'])

def downgrade():
    op.drop_index('ix_shipment_logs_order_id', table_name='shipment_logs')
    op.drop_table('shipment_logs')
    op.drop_index('idx_orders_status_delivered_at', table_name='orders')
    op.drop_index('ix_orders_awb_number', table_name='orders')
    op.drop_index('ix_orders_razorpay_order_id', table_name='orders')
    op.drop_index('ix_orders_order_status', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_index('ix_orders_order_number', table_name='orders')
    op.drop_table('orders')
