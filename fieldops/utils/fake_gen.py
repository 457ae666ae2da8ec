from faker import Faker
from faker.providers import BaseProvider


class SolarProvider(BaseProvider):
    """
    光伏安装业务数据生成器
    提供物料目录和站点名称
    """

    # 物料 (名称, 单位)
    components = [
        ('Solar panel 550W', 'un'), ('Microinverter 2kW', 'un'), ('String inverter 5kW', 'un'),
        ('Aluminium rail 4.2m', 'un'), ('Mid clamp', 'un'), ('End clamp', 'un'),
        ('Roof hook', 'un'), ('MC4 connector pair', 'pair'), ('Solar cable 6mm', 'm'),
        ('String box', 'un'), ('Grounding kit', 'kit'), ('Cable tie pack', 'pack'),
    ]

    site_types = ['Residence', 'Farm', 'Warehouse', 'Condominium', 'Workshop', 'Bakery']

    def site_name(self):
        return f"{self.random_element(self.site_types)} {self.generator.last_name()}"


# 初始化 Faker 并添加自定义 Provider
fake = Faker('pt_BR')
fake.add_provider(SolarProvider)
