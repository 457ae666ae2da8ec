import click
import random
from datetime import datetime, timedelta
from flask.cli import with_appcontext
from fieldops.extensions import db
from fieldops.models import (
    StockItem, FieldRecord, CheckIn, Maintenance, PurchaseRequest, SalesQuote, StockMovement
)
from fieldops.utils.fake_gen import fake, SolarProvider


@click.command('status')
@with_appcontext
def status():
    """
    查看当前数据库中的数据统计。
    """
    click.echo(click.style('📊 FieldOps 数据库状态:', fg='cyan', bold=True))

    try:
        counts = [
            ('Check-ins', FieldRecord.query.filter_by(kind=FieldRecord.KIND_CHECKIN).count()),
            ('Check-outs', FieldRecord.query.filter_by(kind=FieldRecord.KIND_CHECKOUT).count()),
            ('Maintenance', FieldRecord.query.filter_by(kind=FieldRecord.KIND_MAINTENANCE).count()),
            ('Stock items', StockItem.query.count()),
            ('Movements', StockMovement.query.count()),
            ('Purchase requests', PurchaseRequest.query.count()),
            ('Sales quotes', SalesQuote.query.count()),
        ]
        for label, count in counts:
            click.echo(f" - {label}: \t{count}")

        if counts[3][1] > 0:
            click.echo(click.style('✔ 数据库连接正常，数据已存在。', fg='green'))
        else:
            click.echo(click.style('⚠ 数据库为空，请运行 flask forge 生成数据。', fg='yellow'))

    except Exception as e:
        click.echo(click.style(f'✘ 数据库读取失败: {str(e)}', fg='red'))
        click.echo("请检查是否执行了 'flask db upgrade'")


@click.command('check-stock')
@with_appcontext
def check_stock():
    """列出低于最小库存的物料"""
    low = [i for i in StockItem.query.order_by(StockItem.name).all() if i.is_below_minimum]
    if not low:
        click.echo(click.style('✔ 所有物料库存充足。', fg='green'))
        return
    for item in low:
        click.echo(
            f" - {item.name}: {item.quantity:g} {item.unit} "
            f"(min {item.min_quantity:g}, reserved {item.reserved_quantity:g})"
        )
    click.echo(click.style(f'⚠ {len(low)} 项物料低于最小库存。', fg='yellow'))


@click.command('forge')
@click.option('--scale', default=1, help='数据规模倍数 (默认1倍)')
@with_appcontext
def forge(scale):
    """
    初始化并填充演示数据。
    警告：这将清除数据库中的现有数据！
    """
    click.echo(click.style(f'⚡ 初始化演示数据 (规模: {scale}x)...', fg='cyan', bold=True))

    db.drop_all()
    db.create_all()

    click.echo('正在建立物料目录...')
    items = init_stock()

    click.echo('正在生成报价与现场记录...')
    init_field(items, scale)

    click.echo(click.style('✔ 演示数据构建完成！', fg='green', bold=True))


def init_stock():
    items = []
    for name, unit in SolarProvider.components:
        item = StockItem(
            owner_id='admin',
            name=name,
            unit=unit,
            quantity=random.randint(0, 200),
            reserved_quantity=0,
            min_quantity=random.choice([5, 10, 20]),
            average_price=round(random.uniform(5, 1500), 2),
        )
        db.session.add(item)
        items.append(item)
    db.session.commit()
    return items


def init_field(items, scale=1):
    technicians = [fake.first_name() for _ in range(3)]
    for _ in range(10 * scale):
        site = fake.site_name()
        db.session.add(SalesQuote(
            owner_id='admin',
            client_name=site,
            status=SalesQuote.STATUS_APPROVED,
            closed_value=round(random.uniform(8000, 60000), 2),
        ))
        checkin = CheckIn(
            owner_id='admin',
            project=site,
            responsible=random.choice(technicians),
            date=datetime.utcnow() - timedelta(days=random.randint(0, 60)),
            status=FieldRecord.STATUS_OPEN,
            details={'address': fake.street_address(), 'city': fake.city()},
        )
        checkin.set_components([
            {'item_id': item.id, 'item_name': item.name, 'quantity': random.randint(1, 20)}
            for item in random.sample(items, 3)
        ])
        db.session.add(checkin)

    for _ in range(3 * scale):
        visit = Maintenance(
            owner_id='admin',
            project=fake.site_name(),
            responsible=random.choice(technicians),
            date=datetime.utcnow() - timedelta(days=random.randint(0, 30)),
            status=FieldRecord.STATUS_OPEN,
        )
        item = random.choice(items)
        visit.set_components([{'item_id': item.id, 'item_name': item.name, 'quantity': 1}])
        db.session.add(visit)
    db.session.commit()
