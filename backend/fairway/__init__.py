"""
fairway-ops - 球会度假村后台跨实体工作流服务
"""
__version__ = "1.0.0"
