"""Names, labels and states shared by the node disk manager daemon."""

FALSE_STRING = "false"
TRUE_STRING = "true"

NDM_DISK_KIND = "Disk"
NDM_BLOCK_DEVICE_KIND = "BlockDevice"

KUBERNETES_LABEL_PREFIX = "kubernetes.io/"
OPENEBS_LABEL_PREFIX = "openebs.io/"

HOST_NAME_KEY = "hostname"
NODE_NAME_KEY = "nodename"

KUBERNETES_HOST_NAME_LABEL = KUBERNETES_LABEL_PREFIX + HOST_NAME_KEY
NDM_VERSION = OPENEBS_LABEL_PREFIX + "v1alpha1"

RECONCILE_KEY = "reconcile"
OPENEBS_RECONCILE = OPENEBS_LABEL_PREFIX + RECONCILE_KEY

NDM_NOT_PARTITIONED = "No"
NDM_PARTITIONED = "Yes"

NDM_ACTIVE = "Active"
NDM_INACTIVE = "Inactive"
NDM_UNKNOWN = "Unknown"

NDM_DISK_TYPE_KEY = "ndm.io/disk-type"
NDM_DEVICE_TYPE_KEY = "ndm.io/blockdevice-type"
NDM_MANAGED_KEY = "ndm.io/managed"

NDM_DEFAULT_DISK_TYPE = "disk"
NDM_DEFAULT_DEVICE_TYPE = "blockdevice"

# Seconds to wait before checking again for the BlockDevice resource type.
CRD_RETRY_INTERVAL = 10.0

BLOCK_DEVICE_UNCLAIMED = "Unclaimed"
BLOCK_DEVICE_CLAIMED = "Claimed"
BLOCK_DEVICE_RELEASED = "Released"

BY_ID_LINK = "by-id"
BY_PATH_LINK = "by-path"