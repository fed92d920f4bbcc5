"""
Dynatrace entity types

Maps entity ID prefixes (the part before the first hyphen, e.g. HOST in
HOST-1234ABCD) to the Grail entity types that can be fetched with DQL.
The mapping follows the current Dynatrace semantic dictionary and may
change with future versions.
"""

from typing import Optional

ENTITY_ID_PREFIX_TO_TYPE = {
    # Applications and services
    'APPLICATION': 'dt.entity.application',
    'SERVICE': 'dt.entity.service',
    'SERVICE_INSTANCE': 'dt.entity.service_instance',
    'MOBILE_APPLICATION': 'dt.entity.mobile_application',
    'CUSTOM_APPLICATION': 'dt.entity.custom_application',

    # Infrastructure
    'HOST': 'dt.entity.host',
    'HOST_GROUP': 'dt.entity.host_group',
    'PROCESS_GROUP': 'dt.entity.process_group',
    'PROCESS_GROUP_INSTANCE': 'dt.entity.process_group_instance',
    'DISK': 'dt.entity.disk',
    'NETWORK_INTERFACE': 'dt.entity.network_interface',

    # Cloud applications
    'CLOUD_APPLICATION': 'dt.entity.cloud_application',
    'CLOUD_APPLICATION_INSTANCE': 'dt.entity.cloud_application_instance',
    'CLOUD_APPLICATION_NAMESPACE': 'dt.entity.cloud_application_namespace',

    # Containers
    'CONTAINER_GROUP': 'dt.entity.container_group',
    'CONTAINER_GROUP_INSTANCE': 'dt.entity.container_group_instance',
    'DCG_INSTANCE': 'dt.entity.docker_container_group_instance',

    'ENVIRONMENT': 'dt.entity.environment',
    'OS': 'dt.entity.os',

    # Synthetic monitoring
    'SYNTHETIC_TEST': 'dt.entity.synthetic_test',
    'SYNTHETIC_LOCATION': 'dt.entity.synthetic_location',

    # Custom devices
    'CUSTOM_DEVICE': 'dt.entity.custom_device',
    'CUSTOM_DEVICE_GROUP': 'dt.entity.custom_device_group',

    'GEOLOCATION': 'dt.entity.geolocation',
    'RELATIONAL_DATABASE_SERVICE': 'dt.entity.relational_database_service',

    # AWS
    'EC2_INSTANCE': 'dt.entity.ec2_instance',
    'AWS_LAMBDA_FUNCTION': 'dt.entity.aws_lambda_function',
    'AWS_AVAILABILITY_ZONE': 'dt.entity.aws_availability_zone',
    'AWS_APPLICATION_LOAD_BALANCER': 'dt.entity.aws_application_load_balancer',
    'AWS_NETWORK_LOAD_BALANCER': 'dt.entity.aws_network_load_balancer',

    # GCP
    'GCP_ZONE': 'dt.entity.gcp_zone',

    # Virtual machines
    'AZURE_VM': 'dt.entity.azure_vm',
    'OPENSTACK_VM': 'dt.entity.openstack_vm',

    # Kubernetes
    'KUBERNETES_NODE': 'dt.entity.kubernetes_node',
    'KUBERNETES_CLUSTER': 'dt.entity.kubernetes_cluster',
    'KUBERNETES_SERVICE': 'dt.entity.kubernetes_service',
}

DYNATRACE_ENTITY_TYPES = sorted(ENTITY_ID_PREFIX_TO_TYPE.values())


def get_entity_type_from_id(entity_id: Optional[str]) -> Optional[str]:
    """
    Map an entity ID to its entity type.

    >>> get_entity_type_from_id("PROCESS_GROUP-F84E4759809ADA84")
    'dt.entity.process_group'
    >>> get_entity_type_from_id("INVALID_ID") is None
    True
    """
    if not entity_id or not isinstance(entity_id, str) or '-' not in entity_id:
        return None

    prefix = entity_id.split('-', 1)[0]
    return ENTITY_ID_PREFIX_TO_TYPE.get(prefix)
